from gemledger import create_app

app = create_app()
