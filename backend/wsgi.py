# backend/wsgi.py
from warehouse_edge import create_app

app = create_app()
