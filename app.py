import os

from hoho import create_app

app = create_app()

if __name__ == '__main__':
    app.run(debug=app.extensions['hoho'].config.is_dev_like, port=int(os.getenv('PORT', '5000')))
