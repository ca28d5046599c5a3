"""Mint a signed access token for an operator.

Usage: python -m scripts.issue_token <subject> [role] [expires_minutes]
"""

import sys

from app.config import settings
from app.security import create_access_token


def main(argv: list[str]) -> int:
    if not argv:
        print(__doc__.strip(), file=sys.stderr)
        return 1
    subject = argv[0]
    role = argv[1] if len(argv) > 1 else settings.admin_role
    expires = int(argv[2]) if len(argv) > 2 else None
    print(create_access_token(subject, role=role, expires_minutes=expires))
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
