import os

from taskmanager import create_app

app = create_app()

if __name__ == '__main__':
    # Use gunicorn or uwsgi in production, not the Flask development server
    debug_mode = os.getenv('FLASK_DEBUG', 'False').lower() == 'true'
    port = int(os.getenv('FLASK_PORT', 8888))

    app.run(
        debug=debug_mode,
        port=port,
        host='0.0.0.0'
    )
