from api.routes import create_app

# Serverless entry point: the host picks up this WSGI app
app = create_app()
