"""
WSGI entry point for the ledger API (gunicorn wsgi:app).

Background jobs run in a separate `rq worker` process against REDIS_URL.
"""
import os

from app import create_app

app = create_app()

if __name__ == '__main__':
    app.run(host='0.0.0.0', port=int(os.getenv('PORT', 8080)))
