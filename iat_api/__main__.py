from iat_api.main import run

run()
