# backend/scripts/issue_token.py
from __future__ import annotations

import argparse
import sys
from datetime import timedelta
from pathlib import Path
from typing import List, Optional

# Permet de lancer le script depuis backend/ sans souci d'import
BACKEND_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_DIR))

from app.core.security import issue_access_token

"""
Script CLI: issue_token

Rôle (fonctionnel) :
- Signe un access token (mêmes claims que la marketplace : userId, email, role)
  avec le JWT_SECRET courant.
- Pratique en local pour ouvrir une connexion Socket.IO sans passer par le login.

Usage :
    python scripts/issue_token.py --user-id u-123 --email alice@example.com --role CUSTOMER --minutes 60
"""


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Émet un access token de dev pour le WebSocket.")
    p.add_argument("--user-id", required=True)
    p.add_argument("--email", default="dev@shopfronts.local")
    p.add_argument("--role", default="CUSTOMER")
    p.add_argument("--minutes", type=int, default=None, help="Durée de validité (défaut : JWT_EXPIRE_MINUTES)")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    expires_in = timedelta(minutes=args.minutes) if args.minutes is not None else None

    token = issue_access_token(args.user_id, email=args.email, role=args.role, expires_in=expires_in)
    print(token)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
