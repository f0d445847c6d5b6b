"""pkcesession -- OAuth 2.0 authorization code login with PKCE.

This package runs the client side of the authorization code flow with Proof
Key for Code Exchange (RFC 7636) for a public client. It starts the
handshake, validates the redirect, exchanges the code for tokens and keeps
the resulting session in an injected key-value store.

Typical workflow::

    pkcesession config init demo --client-id ... --redirect-uri ...
    pkcesession auth login            # browser opens, redirect is captured
    pkcesession api protected         # call the resource server

Modules:
    app: Typer application factory and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration and profile management.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    auth: PKCE helpers, session manager, storage and loopback listener.
    client: Resource server client that attaches the bearer token.
"""

__version__ = "0.1.0"
