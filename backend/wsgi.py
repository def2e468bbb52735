# backend/wsgi.py
from supersave import create_app

app = create_app()
