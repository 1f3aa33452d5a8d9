"""
Authentication Package

Building blocks of the login flow and the orchestrator that drives them.

Modules:
- pkce: PKCE verifier / challenge generation
- csrf: Origin / Referer guard for trusted-provider POSTs
- state: anti-forgery state token bound to a per-provider cookie
- session: session token issuing, verification and extraction
- trusted: trusted provider protocol, helper and dispatcher
- utils: unverified JWT claim decoding
- flow: the ``Padlock`` orchestrator (initiate / complete / authorize)
- routes: FastAPI router exposing a ``Padlock`` instance

The OAuth flow:
1. Client hits /auth?provider=github
2. Padlock sets the PKCE and state cookies and redirects to the provider
3. Provider redirects back to /auth/callback with code and state
4. Padlock checks state, exchanges the code, fetches and normalizes the user
5. The on_user hook runs, the session cookie is set, the user is returned

This package module imports nothing eagerly: the providers depend on
``auth.utils`` and the orchestrator depends on the providers.
"""
