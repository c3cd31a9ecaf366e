"""Reply texts sent back to the chat. Presentation only."""

from decimal import Decimal, ROUND_HALF_UP

from ledgerbot.models.transaction import MonthlySummary, TransactionProposal


DEFAULT_CURRENCY_SYMBOL = "Rp"

HELP_TEXT = (
    "🤖 Financial Assistant Help\n\n"
    "📝 To record transactions:\n"
    "• Expense: 'spent 50000 on lunch'\n"
    "• Income: 'received 1000000 salary'\n\n"
    "📊 Reports:\n"
    "• 'balance' - Check current balance\n"
    "• 'report' - Monthly report\n"
    "• 'budget' - Budget analysis\n\n"
    "❓ Other commands:\n"
    "• 'help' - Show this message\n"
    "• 'cancel' - Cancel current operation"
)

CANCELLED_TEXT = "❌ Transaction cancelled."
REPROMPT_TEXT = (
    '❓ Please type "confirm" to save the transaction '
    'or "cancel" to discard it.'
)
NOTHING_PENDING_TEXT = (
    "ℹ️ There is no pending transaction. "
    "Describe one, e.g. 'spent 50000 on lunch', or type 'help'."
)

CLARIFICATION_TEXTS = {
    "no_financial_intent": (
        "🤔 I couldn't find a transaction in that message. "
        "Try 'spent 50000 on lunch' or 'received 1000000 salary', "
        "or type 'help'."
    ),
    "no_amount": (
        "🤔 I couldn't find an amount in that message. "
        "Please include it, e.g. 'spent 50000 on lunch'."
    ),
    "empty_message": "🤔 Your message was empty. Type 'help' to see what I can do.",
    "message_too_long": (
        "🤔 That message is too long to record. "
        "Please describe one transaction, e.g. 'spent 50000 on lunch'."
    ),
}
DEFAULT_CLARIFICATION_TEXT = (
    "🤔 Sorry, I couldn't understand that transaction. "
    "Please try again, e.g. 'spent 50000 on lunch'."
)


def format_currency(amount: Decimal, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> str:
    """
    Format an amount the Indonesian way: "Rp 1.500.000", "Rp 12.345,50".

    Decimals appear only when non-zero; negatives get a leading "-".
    """
    value = Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    value = abs(value)

    whole = int(value)
    cents = int((value - whole) * 100)
    text = f"{whole:,}".replace(",", ".")
    if cents:
        text = f"{text},{cents:02d}"
    return f"{sign}{symbol} {text}"


def confirmation_prompt(proposal: TransactionProposal, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> str:
    emoji = "💰" if proposal.kind.value == "income" else "💸"
    return (
        "📝 Please confirm this transaction:\n\n"
        f"{emoji} Type: {proposal.kind.value.title()}\n"
        f"💵 Amount: {format_currency(proposal.amount, symbol)}\n"
        f"🏷️ Category: {proposal.category}\n"
        f"📄 Description: {proposal.description}\n\n"
        'Reply "confirm" to save or "cancel" to discard.'
    )


def balance_reply(balance: Decimal, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> str:
    return f"💰 Current Balance: {format_currency(balance, symbol)}"


def recorded_reply(balance: Decimal, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> str:
    return (
        "✅ Transaction recorded successfully!\n"
        f"💰 Current balance: {format_currency(balance, symbol)}"
    )


def monthly_report_reply(summary: MonthlySummary, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> str:
    return (
        "📊 Monthly Report\n\n"
        f"💰 Total Income: {format_currency(summary.total_income, symbol)}\n"
        f"💸 Total Expenses: {format_currency(summary.total_expense, symbol)}\n"
        f"💵 Net: {format_currency(summary.net, symbol)}"
    )


def clarification_reply(reason: str) -> str:
    return CLARIFICATION_TEXTS.get(reason, DEFAULT_CLARIFICATION_TEXT)
