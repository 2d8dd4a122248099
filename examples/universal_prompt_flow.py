import asyncio
import os
import sys

# Add src to path for running directly
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "../src")))

from coreason_duo import DuoClientAsync, DuoException, create_config


async def main() -> None:
    """
    Walks through the Universal Prompt flow with the async client:
    - health check before redirecting anyone to Duo
    - building the authorization URL with a fresh state
    - exchanging the code Duo hands back for the 2FA result
    """
    print(">>> Starting Duo Universal Prompt Example")

    config = create_config(
        client_id=os.getenv("DUO_CLIENT_ID", "DIXXXXXXXXXXXXXXXXXX"),
        client_secret=os.getenv("DUO_CLIENT_SECRET", "deadbeefdeadbeefdeadbeefdeadbeefdeadbeef"),
        api_host=os.getenv("DUO_API_HOST", "api-XXXXXXXX.duosecurity.com"),
        redirect_uri=os.getenv("DUO_REDIRECT_URI", "http://localhost:8080/duo-callback"),
        user_agent_extra="universal-prompt-example/1.0",
    )

    async with DuoClientAsync(config) as client:
        try:
            await client.health_check()
        except DuoException as e:
            # Without real credentials this fails; a real app would fail open or closed here
            print(f">>> Duo unavailable: {e}")
            return

        username = "alice"
        state = client.generate_state()
        # Store `state` and `username` in the user's session before redirecting
        print(f">>> Redirect the browser to:\n{client.create_auth_url(username, state)}")

        # Duo redirects back with ?duo_code=...&state=...; compare state with the session copy first
        duo_code = input(">>> Paste the duo_code from the redirect: ").strip()
        try:
            token = await client.exchange_authorization_code_for_2fa_result(duo_code, username)
        except DuoException as e:
            print(f">>> Second factor rejected: {e}")
            return

        status = token.auth_result.status if token.auth_result else "unknown"
        print(f">>> {token.username} completed 2FA (status: {status})")


if __name__ == "__main__":
    asyncio.run(main())
