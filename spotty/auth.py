"""Client side of the Spotify OAuth flow.

`SpotifyAuth` hands out access tokens for the Web API client. It reuses
the stored token while it is valid, refreshes it with the refresh token
when it has expired, and only falls back to the interactive
authorization-code flow (browser + local callback server) when neither
works. Every new token is written back to the token store.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import webbrowser
from collections.abc import Callable
from urllib.parse import urlencode, urlparse

import aiohttp
from aiohttp import ClientError, web

from spotty.remote import SpotifyError
from spotty.settings import TokenInfo, TokenStore

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
TOKEN_URL = "https://accounts.spotify.com/api/token"
REDIRECT_URI = "http://localhost:8888/callback"

# Scopes needed to read devices and control playback
SCOPES = ("user-read-playback-state", "user-modify-playback-state")

# Seconds to wait for the user to finish authorizing in the browser
AUTH_TIMEOUT = 120.0

CREDENTIALS_HELP = """\
To set up your credentials:
1. Go to https://developer.spotify.com/dashboard/
2. Log in and create a new app
3. Set the redirect URI to http://localhost:8888/callback in your app settings
4. Set these environment variables with your credentials:
   export SPOTIFY_ID=your_client_id
   export SPOTIFY_SECRET=your_client_secret"""


class AuthError(SpotifyError):
    """Authorization with Spotify failed."""


def missing_credentials(client_id: str | None, client_secret: str | None) -> list[str]:
    """Names of the credential environment variables that are not set."""
    missing = []
    if not client_id:
        missing.append("SPOTIFY_ID")
    if not client_secret:
        missing.append("SPOTIFY_SECRET")
    return missing


class SpotifyAuth:
    """Provides access tokens, refreshing or re-authorizing as needed."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        store: TokenStore,
        client_id: str,
        client_secret: str,
        *,
        redirect_uri: str = REDIRECT_URI,
        token_url: str = TOKEN_URL,
        open_browser: Callable[[str], bool] = webbrowser.open,
        auth_timeout: float = AUTH_TIMEOUT,
    ) -> None:
        """Initialize the token provider.

        Args:
            session: HTTP session for token requests.
            store: Where tokens are persisted.
            client_id: Spotify app client ID.
            client_secret: Spotify app client secret.
            redirect_uri: Callback URL registered with the Spotify app.
            token_url: Token endpoint, overridable for tests.
            open_browser: Opens the authorization page; returns False on failure.
            auth_timeout: Seconds to wait for the browser callback.
        """
        self._session = session
        self._store = store
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_uri = redirect_uri
        self._token_url = token_url
        self._open_browser = open_browser
        self._auth_timeout = auth_timeout
        self._token: TokenInfo | None = None
        self._loaded = False
        self._lock = asyncio.Lock()

    async def get_access_token(self) -> str:
        """Return a valid access token."""
        async with self._lock:
            if not self._loaded:
                self._token = await self._store.load()
                self._loaded = True

            token = self._token
            if token is not None and token.is_valid():
                return token.access_token

            if token is not None and token.refresh_token:
                try:
                    self._token = await self._refresh(token.refresh_token)
                except AuthError as e:
                    logger.warning("Token refresh failed, authorizing again: %s", e)
                else:
                    await self._save(self._token)
                    return self._token.access_token

            self._token = await self.authorize()
            await self._save(self._token)
            return self._token.access_token

    async def _save(self, token: TokenInfo) -> None:
        try:
            await self._store.save(token)
        except OSError as e:
            print(f"Warning: Failed to save token: {e}")  # noqa: T201

    async def _token_request(self, data: dict[str, str]) -> dict[str, object]:
        """POST to the token endpoint with client credentials."""
        auth = aiohttp.BasicAuth(self._client_id, self._client_secret)
        try:
            async with self._session.post(
                self._token_url,
                data=data,
                auth=auth,
                timeout=aiohttp.ClientTimeout(total=10),
            ) as resp:
                body = await resp.json(content_type=None)
                if resp.status != 200:
                    error = None
                    if isinstance(body, dict):
                        error = body.get("error_description") or body.get("error")
                    raise AuthError(
                        f"token request failed (HTTP {resp.status}): {error or resp.reason}"
                    )
                return body
        except (TimeoutError, OSError, ClientError, ValueError) as e:
            raise AuthError(f"token request failed: {e}") from e

    async def _refresh(self, refresh_token: str) -> TokenInfo:
        body = await self._token_request(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}
        )
        token = TokenInfo.from_response(body, previous_refresh_token=refresh_token)
        if token.refresh_token != refresh_token:
            logger.info("Refresh token rotated")
        logger.info("Access token refreshed (expires %s)", token.expiry)
        return token

    async def client_credentials_token(self) -> str:
        """Get an app-only token, enough for public catalog and profile data."""
        body = await self._token_request({"grant_type": "client_credentials"})
        return TokenInfo.from_response(body).access_token

    def authorize_url(self, state: str) -> str:
        """Build the URL the user visits to grant access."""
        params = urlencode(
            {
                "client_id": self._client_id,
                "response_type": "code",
                "redirect_uri": self._redirect_uri,
                "scope": " ".join(SCOPES),
                "state": state,
            }
        )
        return f"{AUTHORIZE_URL}?{params}"

    async def authorize(self) -> TokenInfo:
        """Run the one-time interactive authorization-code flow."""
        state = f"spotty-auth-{secrets.token_urlsafe(16)}"
        loop = asyncio.get_running_loop()
        code_future: asyncio.Future[str] = loop.create_future()

        async def callback(request: web.Request) -> web.Response:
            if error := request.query.get("error"):
                if not code_future.done():
                    code_future.set_exception(AuthError(f"Spotify authorization error: {error}"))
                return web.Response(
                    text=f"Authorization failed: {error}. Please close this window and try again."
                )
            if request.query.get("state") != state:
                if not code_future.done():
                    code_future.set_exception(
                        AuthError("state mismatch in authorization callback")
                    )
                return web.Response(status=400, text="State mismatch error")
            code = request.query.get("code", "")
            if not code_future.done():
                code_future.set_result(code)
            return web.Response(
                text=(
                    "Authorization successful! "
                    "You can close this window and return to the application."
                )
            )

        redirect = urlparse(self._redirect_uri)
        app = web.Application()
        app.router.add_get(redirect.path or "/callback", callback)
        runner = web.AppRunner(app)
        await runner.setup()
        site = web.TCPSite(runner, redirect.hostname, redirect.port or 80)
        try:
            try:
                await site.start()
            except OSError as e:
                raise AuthError(f"cannot listen for the authorization callback: {e}") from e

            url = self.authorize_url(state)
            print("You need to authorize this application to control Spotify.")  # noqa: T201
            print("This is a one-time process.")  # noqa: T201
            if self._open_browser(url):
                print(  # noqa: T201
                    "Browser opened. Please complete the authorization in your browser."
                )
            else:
                print(f"Please visit this URL to authorize: {url}")  # noqa: T201
            print("Waiting for callback from Spotify...")  # noqa: T201

            try:
                code = await asyncio.wait_for(code_future, self._auth_timeout)
            except TimeoutError as e:
                raise AuthError("Authorization timed out. Please try again.") from e
        finally:
            await runner.cleanup()

        body = await self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._redirect_uri,
            }
        )
        print("Authorization successful!")  # noqa: T201
        return TokenInfo.from_response(body)


class StaticToken:
    """Token provider wrapping an already issued access token."""

    def __init__(self, access_token: str) -> None:
        """Initialize with the token to hand out."""
        self._access_token = access_token

    async def get_access_token(self) -> str:
        return self._access_token
