import sys
try:
    from . import create_app
except ImportError:  # pragma: no cover - fallback when running from barber_club/ cwd
    from __init__ import create_app

app = create_app()

if __name__ == '__main__':
    port = int(sys.argv[1]) if len(sys.argv) > 1 else 5000
    print(f" * Running on http://127.0.0.1:{port} (backend: {app.config.get('DATA_BACKEND')})")
    app.run(host='127.0.0.1', port=port, debug=False)
