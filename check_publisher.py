"""
Quick script to test the Telegram publisher.
Run this to verify your Telegram setup works before starting the bot.
"""

import sys

from crowdbot.publisher import TelegramPublisher


def check_publisher() -> bool:
    """Verify the bot token and send one test post."""
    publisher = TelegramPublisher(dry_run=False)

    print("Checking Telegram configuration...\n")

    if not publisher.bot_token:
        print("[X] TELEGRAM_BOT_TOKEN not found in .env file")
        return False

    if not publisher.chat_id:
        print("[X] TELEGRAM_CHAT_ID not found in .env file")
        return False

    print(f"[OK] TELEGRAM_BOT_TOKEN: {publisher.bot_token[:20]}...")
    print(f"[OK] TELEGRAM_CHAT_ID: {publisher.chat_id}\n")

    try:
        publisher.verify()
    except Exception as e:
        print(f"[ERROR] {e}\n")
        print("Common issues:")
        print("  1. Verify bot token from @BotFather")
        print("  2. Make sure the bot is an admin of the channel")
        return False

    print("Sending test post...\n")
    if not publisher.publish("📊 Test post - your Polymarket crowd bot is connected!"):
        print("[ERROR] Post was not delivered, see the log above")
        print("  Verify chat ID from @userinfobot")
        return False

    print("[SUCCESS] Check your Telegram - you should see a test post!")
    return True


if __name__ == "__main__":
    sys.exit(0 if check_publisher() else 1)
