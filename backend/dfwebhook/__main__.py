"""Run the webhook server: ``python -m dfwebhook``."""

from dfwebhook.main import run

if __name__ == "__main__":
    run()
