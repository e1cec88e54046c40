from __future__ import annotations

import secrets

from fastapi import HTTPException, Request, status

PASSWORD_HEADER = "X-Shared-Link-Password"


class SharedLinkGate:
  """Keeps password-protected workspaces and boards out of casual view.

  Passwords are stored as plaintext and compared as sent. This only spares people
  who were handed a link from seeing boards they were not meant to browse; it is
  not an access-control boundary and nothing should rely on it as one.
  """

  def __init__(self, provided: str | None) -> None:
    self.provided = provided or ""

  def opens(self, password: str | None) -> bool:
    if not password:
      return True
    return secrets.compare_digest(self.provided.encode("utf-8"), password.encode("utf-8"))

  def check(self, *passwords: str | None) -> None:
    for p in passwords:
      if not self.opens(p):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Password required")


def shared_link_gate(request: Request) -> SharedLinkGate:
  return SharedLinkGate(request.headers.get(PASSWORD_HEADER))
