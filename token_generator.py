"""
Run this script manually to generate the OAuth token for the Gmail
account that receives forwarded M-PESA SMS.

It reads paths from .env and saves the generated token to disk.
"""

import os
from dotenv import load_dotenv
from google_auth_oauthlib.flow import InstalledAppFlow

load_dotenv()

# Gmail read-only access
SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]


def generate_token(credentials_path: str, token_output: str):
    if not credentials_path:
        print("[SKIP] GMAIL_SMS_CREDENTIALS is not set")
        return

    if not os.path.exists(credentials_path):
        print(f"[ERROR] Credentials file not found: {credentials_path}")
        return

    flow = InstalledAppFlow.from_client_secrets_file(credentials_path, SCOPES)
    creds = flow.run_local_server(port=0)

    token_dir = os.path.dirname(token_output)
    if token_dir:
        os.makedirs(token_dir, exist_ok=True)

    with open(token_output, "w") as f:
        f.write(creds.to_json())

    print(f"[OK] Saved token -> {token_output}")


if __name__ == "__main__":
    generate_token(
        credentials_path=os.getenv("GMAIL_SMS_CREDENTIALS"),
        token_output=os.getenv("GMAIL_SMS_TOKEN", "credentials/sms_token.json"),
    )
