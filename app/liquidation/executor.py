"""
Liquidation Executor: submits liquidations to the flash mint / flash loan liquidator contracts.
"""

from typing import Dict, Optional, Set, Tuple

from web3 import Web3
from web3.contract import Contract
from web3.logs import DISCARD

from .config_loader import BotConfig
from .contracts import create_contract_instance
from .exceptions import ExecutionFailure, LiquidationError, TransactionBuildError
from .ledger import PositionLedger
from .logging_config import setup_logger
from .models import (
    CurveSwapInstruction,
    FlashMode,
    LiquidationCandidate,
    LiquidationResult,
    OdosSwapInstruction,
    UniswapV3SwapInstruction,
    Venue,
)

logger = setup_logger()

DEFAULT_GAS_MULTIPLIER = 2


class TransactionSender:
    """Builds, signs and sends transactions from the liquidator EOA and waits for the receipt."""

    def __init__(self, config: BotConfig):
        self.config = config
        self.w3 = config.w3
        self.gas_multiplier = config.get("GAS_MULTIPLIER", DEFAULT_GAS_MULTIPLIER)
        self.receipt_timeout = int(config.get("TX_RECEIPT_TIMEOUT", 120))

    def send(self, contract_function, description: str):
        """
        Send a contract call and wait for it to be mined.

        Raises:
            TransactionBuildError: building or gas estimation failed
            ExecutionFailure: the transaction reverted or was not mined in time
        """
        try:
            tx = contract_function.build_transaction(
                {
                    "chainId": self.config.CHAIN_ID,
                    "from": self.config.LIQUIDATOR_EOA,
                    "nonce": self.w3.eth.get_transaction_count(self.config.LIQUIDATOR_EOA),
                    "gasPrice": self.w3.eth.gas_price,
                }
            )
            tx["gas"] = int(self.w3.eth.estimate_gas(tx) * self.gas_multiplier)
        except Exception as ex:
            raise TransactionBuildError(f"Failed to build {description} transaction: {ex}") from ex

        signed_tx = self.w3.eth.account.sign_transaction(tx, self.config.LIQUIDATOR_EOA_PRIVATE_KEY)
        tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        tx_hash_hex = Web3.to_hex(tx_hash)
        logger.info("%s transaction sent: %s", description, tx_hash_hex)

        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        except Exception as ex:
            raise ExecutionFailure(f"{description} transaction not confirmed: {ex}", tx_hash=tx_hash_hex) from ex

        if receipt["status"] != 1:
            raise ExecutionFailure(f"{description} transaction reverted", tx_hash=tx_hash_hex)

        logger.info("%s transaction confirmed in block %s", description, receipt["blockNumber"])
        return receipt


class LiquidationExecutor:
    """
    Flash mint mode when the debt asset is the flash mintable stablecoin,
    flash loan mode otherwise.
    """

    def __init__(self, config: BotConfig, ledger: PositionLedger, sender: Optional[TransactionSender] = None):
        self.config = config
        self.ledger = ledger
        self.sender = sender or TransactionSender(config)
        self.flash_mint_stable = Web3.to_checksum_address(config.FLASH_MINT_STABLE_ADDRESS)

        self._contracts: Dict[Tuple[Venue, FlashMode], Contract] = {}
        self._registered: Set[str] = set()

    def flash_mode_for(self, debt_token: str) -> FlashMode:
        if debt_token.lower() == self.flash_mint_stable.lower():
            return FlashMode.FLASH_MINT
        return FlashMode.FLASH_LOAN

    def liquidator_contract(self, venue: Venue, flash_mode: FlashMode) -> Contract:
        key = (venue, flash_mode)
        if key not in self._contracts:
            address = self.config.liquidator_contracts(venue.value)[flash_mode.value]
            if not address:
                raise LiquidationError(f"No {flash_mode.value} liquidator contract configured for {venue.value}")

            abi_key = "FLASH_MINT_LIQUIDATOR_ABI_PATH"
            if flash_mode == FlashMode.FLASH_LOAN:
                abi_key = (
                    "FLASH_LOAN_LIQUIDATOR_UNISWAP_V3_ABI_PATH"
                    if venue == Venue.UNISWAP_V3
                    else "FLASH_LOAN_LIQUIDATOR_ABI_PATH"
                )
            self._contracts[key] = create_contract_instance(address, abi_key, self.config)
        return self._contracts[key]

    def receiver_for(self, venue: Venue, candidate: LiquidationCandidate) -> str:
        """Address of the liquidator contract that will receive the swap output."""
        flash_mode = self.flash_mode_for(candidate.debt_reserve.address)
        return self.liquidator_contract(venue, flash_mode).address

    def ensure_liquidator_registered(self, contract: Contract) -> None:
        if contract.address in self._registered:
            return

        if not contract.functions.isLiquidator(self.config.LIQUIDATOR_EOA).call():
            logger.info("Registering %s as liquidator on %s", self.config.LIQUIDATOR_EOA, contract.address)
            self.sender.send(contract.functions.addLiquidator(self.config.LIQUIDATOR_EOA), "addLiquidator")

        self._registered.add(contract.address)

    def approve_and_wait(self, token: str, spender: str, amount: int):
        erc20 = create_contract_instance(token, "ERC20_ABI_PATH", self.config)
        logger.info("Approving %s of %s for %s", amount, token, spender)
        return self.sender.send(
            erc20.functions.approve(Web3.to_checksum_address(spender), int(amount)), f"approve {token}"
        )

    def execute(self, candidate: LiquidationCandidate, instruction, is_unstake: bool = False) -> LiquidationResult:
        venue = instruction.venue
        flash_mode = self.flash_mode_for(candidate.debt_reserve.address)
        contract = self.liquidator_contract(venue, flash_mode)

        self.ensure_liquidator_registered(contract)

        debt_a_token, _, _ = self.ledger.get_reserve_token_addresses(candidate.debt_reserve.address)
        collateral_a_token, _, _ = self.ledger.get_reserve_token_addresses(candidate.collateral_reserve.address)
        borrower = Web3.to_checksum_address(candidate.user_address)
        repay_amount = candidate.to_liquidate_amount

        if isinstance(instruction, UniswapV3SwapInstruction):
            if flash_mode == FlashMode.FLASH_LOAN:
                call = contract.functions.liquidate(
                    debt_a_token, collateral_a_token, borrower, repay_amount, False, instruction.encode()
                )
            else:
                call = contract.functions.liquidate(
                    debt_a_token, collateral_a_token, borrower, repay_amount, False, False, instruction.encode()
                )
        elif isinstance(instruction, (CurveSwapInstruction, OdosSwapInstruction)):
            call = contract.functions.liquidate(
                debt_a_token, collateral_a_token, borrower, repay_amount, False, is_unstake, instruction.encode()
            )
        else:
            raise TypeError(f"Unsupported swap instruction: {type(instruction).__name__}")

        logger.info(
            "Liquidating %s with %s on %s: repay %s %s, seize %s",
            borrower, flash_mode.value, venue.value, repay_amount,
            candidate.debt_reserve.symbol, candidate.collateral_reserve.symbol,
        )
        receipt = self.sender.send(call, "liquidate")

        seized, covered = self.parse_liquidation_event(receipt)
        return LiquidationResult(
            tx_hash=Web3.to_hex(receipt["transactionHash"]),
            seized_collateral_amount=seized,
            debt_covered=covered if covered else repay_amount,
            gas_used=int(receipt["gasUsed"]),
            flash_mode=flash_mode,
        )

    def parse_liquidation_event(self, receipt) -> Tuple[int, int]:
        """liquidatedCollateralAmount and debtToCover from the pool's LiquidationCall event."""
        events = self.ledger.pool.events.LiquidationCall().process_receipt(receipt, errors=DISCARD)
        if not events:
            logger.warning("No LiquidationCall event found in receipt")
            return 0, 0

        args = events[0]["args"]
        return int(args["liquidatedCollateralAmount"]), int(args["debtToCover"])
