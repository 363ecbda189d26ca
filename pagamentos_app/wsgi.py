# pagamentos_app/wsgi.py
# -*- coding: utf-8 -*-
from pagamentos_app import create_app

app = create_app()

if __name__ == "__main__":
    app.run(threaded=True)
