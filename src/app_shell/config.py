import logging
import os
from pathlib import Path

from src.rules.models import Rules

logger = logging.getLogger(__name__)


def validate_runtime(rules: Rules, data_dir: Path, api_token: str | None) -> list[str]:
    """
    Check operational requirements before startup.

    Returns a list of problems. None of them are fatal on their own: without
    a token the API still starts but rejects every gated request.
    """
    problems = []

    # 1. Data dir must be creatable and writable (DB and blobs live there)
    try:
        data_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        problems.append(f"Data directory {data_dir} cannot be created: {e}")
    else:
        if not os.access(data_dir, os.W_OK):
            problems.append(f"Data directory {data_dir} is not writable")

    # 2. API token (API_AUTH_TOKEN)
    if not api_token:
        problems.append("API_AUTH_TOKEN is not set; all gated routes will return 401")

    # 3. Listing bounds must be coherent
    if rules.listing.default_limit > rules.listing.max_limit:
        problems.append(
            f"listing.default_limit ({rules.listing.default_limit}) exceeds "
            f"listing.max_limit ({rules.listing.max_limit})"
        )

    for problem in problems:
        logger.warning("Config check: %s", problem)
    return problems
