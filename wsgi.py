# ==============================================================================
# WSGI Entry Point - Para Gunicorn en producción
# ==============================================================================
# USO:
#   gunicorn wsgi:app --bind 0.0.0.0:$PORT
#
# ESTRUCTURA DEL PROYECTO:
#   repo_root/           <- Directorio de trabajo (en sys.path automáticamente)
#   ├── wsgi.py          <- Este archivo
#   ├── pyproject.toml
#   └── app_pos/         <- Paquete Python
#       ├── main.py
#       ├── services/
#       └── repositories/
#
# El backend (nube o local) se decide UNA sola vez al crear la app, a partir
# de las variables de entorno / .env (ver app_pos/config.py).
# ==============================================================================

from app_pos.main import create_app

app = create_app()

if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=5000, threaded=True)
