"""Run the admin UI with uvicorn: ``python -m alerta.apps.admin_ui``."""

import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "alerta.apps.admin_ui.app:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        proxy_headers=True,
        log_config=None,
    )


if __name__ == "__main__":
    main()
