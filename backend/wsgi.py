# backend/wsgi.py
from wipledger import create_app

app = create_app()
