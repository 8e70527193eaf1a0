"""Reply texts sent by the bot. Telegram Markdown unless noted."""

from telegram.helpers import escape_markdown

START_HINT = "node index.js --owner"


def _inline(text: str) -> str:
    """Code span for user-supplied text; escaped plain text if it holds a backtick."""
    if "`" in text:
        return escape_markdown(text, version=1)
    return f"`{text}`"


def _run_hint(identifier: str) -> str:
    return _inline(f"{START_HINT} {identifier}")


def welcome() -> str:
    return (
        "🎉 *Welcome to BuidlGuidl Client Alert Bot!*\n\n"
        "Please send me your ENS name or Ethereum address to get started.\n\n"
        "Examples:\n"
        "• `vitalik.eth`\n"
        "• `0x1234...abcd`"
    )


def welcome_back(identifier: str) -> str:
    return (
        "✅ *Welcome back!*\n\n"
        f"Your registered identifier: {_inline(identifier)}\n\n"
        "To use it, start your node with:\n"
        f"{_run_hint(identifier)}\n\n"
        "Use /help for more commands."
    )


def show(identifier: str) -> str:
    return (
        "🔑 *Your Registered Identifier*\n\n"
        f"{_inline(identifier)}\n\n"
        "Use this when starting your node:\n"
        f"{_run_hint(identifier)}"
    )


def not_registered_show() -> str:
    return "❌ You haven't registered yet.\n\nUse /start to register your ENS or address."


def not_registered_change() -> str:
    return "❌ You haven't registered yet.\n\nUse /start to register your ENS or address first."


def not_registered_stop() -> str:
    return "❌ You haven't registered yet.\n\nThere's no data to delete."


def change_prompt(identifier: str) -> str:
    return (
        "🔄 *Change Your Identifier*\n\n"
        f"Currently registered: {_inline(identifier)}\n\n"
        "Please send me your new ENS name or Ethereum address.\n\n"
        "⚠️ Your old registration will be removed once the new one is confirmed."
    )


def stop_prompt(identifier: str) -> str:
    return (
        "⚠️ *Stop Alert Service*\n\n"
        "You are about to be opted-out of the Telegram alert service.\n\n"
        f"Your registered identifier: {_inline(identifier)}\n\n"
        "You will no longer receive alerts.\n\n"
        "To confirm, please type: `y` or `yes`\n"
        "To cancel, type anything else or use /start"
    )


def help_text() -> str:
    return (
        "📚 *BuidlGuidl Alert Bot - Help*\n\n"
        "*Available Commands:*\n"
        "/start - Register your ENS or Ethereum address\n"
        "/show - Display your registered identifier\n"
        "/change - Change your registered identifier\n"
        "/stop - Delete your data and opt-out of alerts\n"
        "/help - Show this help message\n\n"
        "*Setup Instructions:*\n"
        "1️⃣ Use /start and provide your ENS or address\n"
        "2️⃣ Start your node with:\n"
        f"   `{START_HINT} YOUR_ENS_OR_ADDRESS`\n"
        "3️⃣ You'll receive alerts when your clients crash"
    )


def unknown_command() -> str:
    return "❓ Unknown command. Use /help to see available commands."


def invalid_input() -> str:
    return "❌ Invalid input. Please send a valid ENS name or Ethereum address."


def resolution_failed(name: str) -> str:
    return (
        f"❌ Failed to resolve ENS: {_inline(name)}\n\n"
        "Please check the ENS name and try again, or use your Ethereum address instead."
    )


def invalid_address(raw: str) -> str:
    return (
        f"❌ Invalid Ethereum address: {_inline(raw)}\n\n"
        "Please send a valid ENS name or Ethereum address."
    )


def registered(ens: str | None, address: str) -> str:
    lines = ["✅ *Successfully registered!*", ""]
    if ens:
        lines.append(f"ENS: {_inline(ens)}")
    lines.append(f"Address: {_inline(address)}")
    lines += ["", "Start your node with:", _run_hint(ens or address)]
    return "\n".join(lines)


def changed(old_identifier: str, ens: str | None, address: str) -> str:
    lines = ["✅ *Successfully changed!*", "", f"Old: {_inline(old_identifier)}"]
    if ens:
        lines.append(f"New ENS: {_inline(ens)}")
    lines.append(f"New Address: {_inline(address)}")
    lines += ["", "Start your node with:", _run_hint(ens or address)]
    return "\n".join(lines)


def opted_out(identifier: str) -> str:
    return (
        "✅ *Successfully Opted Out*\n\n"
        f"Your registration has been deleted: {_inline(identifier)}\n\n"
        "You will no longer receive alerts. If you change your mind, use /start to register again."
    )


def deletion_cancelled() -> str:
    return (
        "✅ *Deletion Cancelled*\n\n"
        "Your registration is still active. You will continue to receive alerts."
    )


def something_went_wrong(retry_command: str | None = None) -> str:
    if retry_command:
        return f"❌ Sorry, something went wrong. Please try {retry_command} again."
    return "❌ Sorry, something went wrong. Please try again later."
