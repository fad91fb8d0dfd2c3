"""
Read-only client for the lending pool: health factors, reserves, balances and prices.
"""

from typing import Dict, List, Tuple

from web3 import Web3

from .config_loader import BotConfig
from .contracts import create_contract_instance
from .exceptions import TransientReadFailure
from .logging_config import setup_logger
from .models import ReserveInfo, UserReserveInfo

logger = setup_logger()


class PositionLedger:
    """
    Thin wrapper over the Aave v3 Pool, AaveProtocolDataProvider, AaveOracle
    and LiquidationLogic contracts.
    """

    def __init__(self, config: BotConfig):
        self.config = config
        self.pool = create_contract_instance(config.POOL_ADDRESS, "POOL_ABI_PATH", config)
        self.data_provider = create_contract_instance(
            config.POOL_DATA_PROVIDER_ADDRESS, "POOL_DATA_PROVIDER_ABI_PATH", config
        )
        self.oracle = create_contract_instance(config.ORACLE_ADDRESS, "ORACLE_ABI_PATH", config)
        self.liquidation_logic = create_contract_instance(
            config.LIQUIDATION_LOGIC_ADDRESS, "LIQUIDATION_LOGIC_ABI_PATH", config
        )
        self.price_decimals = int(config.ORACLE_PRICE_DECIMALS)

        # symbols never change for a deployed token
        self._symbols: Dict[str, str] = {}

    def get_health_factor(self, user: str) -> int:
        """Health factor as an 18-decimal fixed point integer."""
        try:
            account_data = self.pool.functions.getUserAccountData(Web3.to_checksum_address(user)).call()
        except Exception as ex:
            raise TransientReadFailure(f"Failed to read health factor for {user}: {ex}") from ex
        return int(account_data[5])

    def get_reserves_list(self) -> List[str]:
        return list(self.pool.functions.getReservesList().call())

    def get_asset_price(self, asset: str) -> int:
        return int(self.oracle.functions.getAssetPrice(Web3.to_checksum_address(asset)).call())

    def get_symbol(self, token: str) -> str:
        key = token.lower()
        if key not in self._symbols:
            erc20 = create_contract_instance(token, "ERC20_ABI_PATH", self.config)
            self._symbols[key] = erc20.functions.symbol().call()
        return self._symbols[key]

    def get_reserve_info(self, asset: str) -> ReserveInfo:
        checksum_asset = Web3.to_checksum_address(asset)
        (
            decimals,
            _ltv,
            _liquidation_threshold,
            liquidation_bonus,
            _reserve_factor,
            usage_as_collateral_enabled,
            borrowing_enabled,
            *_,
        ) = self.data_provider.functions.getReserveConfigurationData(checksum_asset).call()

        return ReserveInfo(
            address=checksum_asset,
            symbol=self.get_symbol(checksum_asset),
            decimals=int(decimals),
            price_usd=self.get_asset_price(checksum_asset),
            price_decimals=self.price_decimals,
            liquidation_bonus_bps=int(liquidation_bonus),
            usage_as_collateral_enabled=bool(usage_as_collateral_enabled),
            borrowing_enabled=bool(borrowing_enabled),
        )

    def get_user_reserve_info(self, user: str, reserve: ReserveInfo) -> UserReserveInfo:
        try:
            user_data = self.data_provider.functions.getUserReserveData(
                Web3.to_checksum_address(reserve.address), Web3.to_checksum_address(user)
            ).call()
        except Exception as ex:
            raise TransientReadFailure(
                f"Failed to read reserve {reserve.symbol} for {user}: {ex}"
            ) from ex

        current_a_token_balance, current_stable_debt, current_variable_debt = user_data[0], user_data[1], user_data[2]
        return UserReserveInfo(
            user_address=user,
            reserve=reserve,
            total_supply=int(current_a_token_balance),
            total_debt=int(current_stable_debt) + int(current_variable_debt),
        )

    def get_reserve_token_addresses(self, asset: str) -> Tuple[str, str, str]:
        """aToken, stable debt token and variable debt token addresses of a reserve."""
        a_token, stable_debt, variable_debt = self.data_provider.functions.getReserveTokensAddresses(
            Web3.to_checksum_address(asset)
        ).call()
        return a_token, stable_debt, variable_debt

    def get_close_factor_threshold(self) -> int:
        return int(self.liquidation_logic.functions.CLOSE_FACTOR_HF_THRESHOLD().call())

    def get_erc4626_asset(self, token: str) -> str:
        """
        Underlying asset of an ERC-4626 wrapper. Tokens listed in the proxy
        contract map are read through their proxy address. Only one level of
        wrapping is resolved.
        """
        target = self.config.proxy_contract_map.get(token.lower(), token)
        vault = create_contract_instance(target, "ERC4626_ABI_PATH", self.config)
        return vault.functions.asset().call()

    def is_unstake_token(self, token: str) -> bool:
        return token.lower() in self.config.unstake_tokens
