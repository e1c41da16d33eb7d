# ==============================================================================
# WSGI - Punto de entrada para producción
# ==============================================================================
# Construye la app con create_app() usando la configuración del entorno
# (KARDEX_DATABASE_URL, KARDEX_SECRET_KEY, ... ver kardex_plus/config.py).
#
#   pip install -e ".[server]"
#   gunicorn wsgi:app --bind 0.0.0.0:$PORT --workers 2
#
# La base se prepara antes con los comandos de Flask:
#   flask --app wsgi init-db
#   flask --app wsgi seed-permissions --admin-email admin@empresa.cl --admin-password ...
# ==============================================================================

from kardex_plus.main import create_app

app = create_app()

# Desarrollo local: python wsgi.py
if __name__ == '__main__':
    app.run(debug=True, host='127.0.0.1', port=5000)
