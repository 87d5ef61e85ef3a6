from app.listdesk import create_app

app = create_app()
