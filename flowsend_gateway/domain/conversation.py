"""General conversational replies when no banking intent is detected"""

import logging
from typing import Optional, Sequence

from flowsend_gateway.domain.intent import TextGenerator
from flowsend_gateway.domain.models import ConversationTurn

logger = logging.getLogger(__name__)

UNAVAILABLE_REPLY = "Sorry, I'm having trouble responding right now. Please try again in a moment."

SYSTEM_PROMPT = """You are a helpful AI assistant for a Base miniapp called FlowSend. You help users understand \
crypto operations and guide them through transactions on Base Sepolia.

IMPORTANT CONTEXT:
- Users connect their own Coinbase Smart Wallet
- You CAN execute banking transactions when users request them
- The app supports gasless transactions for USDC transfers
{wallet_context}

YOUR CAPABILITIES:
1. Help users understand their wallet and balances
2. Guide users through transferring ETH or USDC
3. Direct users to testnet faucets for test tokens
4. Explain crypto concepts, DeFi, smart wallets, etc.
5. Execute banking operations (deposit/withdraw USDC via bank, buy/sell USDC with card or bank)

BANKING OPERATIONS YOU CAN PERFORM:
- Show bank accounts: show my bank accounts
- Deposit USDC: deposit 100 USDC to my wallet
- Withdraw USDC: withdraw 50 USDC to bank account ID xyz
- Buy or sell USDC: buy 25 USDC

For deposits and withdrawals, users need to have:
- A linked bank account (for withdrawals)
- Sufficient USD balance (for deposits)
- Sufficient USDC balance (for withdrawals)

TESTNET FAUCETS:
- Coinbase Faucet: https://portal.cdp.coinbase.com/products/faucet
- Base Sepolia Faucet: https://www.alchemy.com/faucets/base-sepolia

Be conversational, helpful, and clear. Always explain what is happening with transactions."""


def build_system_prompt(wallet_address: Optional[str]) -> str:
    if wallet_address:
        wallet_context = f"\nUser Connected Wallet: {wallet_address}\nNetwork: Base Sepolia Testnet"
    else:
        wallet_context = "\nUser has not connected their wallet yet."
    return SYSTEM_PROMPT.format(wallet_context=wallet_context)


class ConversationResponder:
    def __init__(self, generator: TextGenerator):
        self.generator = generator

    async def respond(self, turns: Sequence[ConversationTurn], wallet_address: Optional[str] = None) -> str:
        """Reply to the last turn, replaying the earlier turns as history"""
        if not turns:
            return ""
        *history, last = turns
        try:
            return await self.generator.reply(build_system_prompt(wallet_address), history, last.content)
        except Exception as e:
            logger.warning("Conversational reply failed", extra={"error": str(e)})
            return UNAVAILABLE_REPLY
