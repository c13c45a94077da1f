# backend/wsgi.py
from spa_pos import create_app

app = create_app()
