"""Run the API server: python -m budget_ledger"""

import uvicorn

from budget_ledger.config import get_settings


def main():
    settings = get_settings()
    uvicorn.run(
        "budget_ledger.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
