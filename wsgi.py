# wsgi.py
"""
WSGI entry point: ``gunicorn wsgi:application``
"""

from app import create_app

# Production WSGI application
application = create_app()

if __name__ == '__main__':
    application.run(host='0.0.0.0', port=5000)
