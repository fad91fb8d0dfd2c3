"""
User Directory client: lists every borrower address known to the subgraph.
"""

from typing import List

from .config_loader import BotConfig
from .decorators import post_api_request
from .exceptions import ConfigError, TransientReadFailure
from .logging_config import setup_logger

logger = setup_logger()

ACCOUNTS_QUERY = """query GetAccounts($first: Int, $lastId: ID){
    accounts(
        first: $first,
        where: { id_gt: $lastId }
        orderBy: id,
        orderDirection: asc
    ) {
  id
}
}"""


class UserDirectory:
    def __init__(self, config: BotConfig):
        self.config = config
        self.is_local = bool(config.get("IS_LOCAL", False))
        self.graph_url = config.get("GRAPH_URL", "") or ""
        self.batch_size = int(config.get("GRAPH_BATCH_SIZE", 0) or 0)

        if not self.is_local:
            if len(self.graph_url) < 10:
                raise ConfigError(f"Invalid graph URL: {self.graph_url}")
            if self.batch_size < 1:
                raise ConfigError(f"Invalid graph batch size: {self.batch_size}")

    def get_all_users(self) -> List[str]:
        """
        Page through the subgraph with an id cursor until an empty page is returned.
        Local networks return the configured account list.
        """
        if self.is_local:
            return list(self.config.get("LOCAL_ACCOUNTS", []) or [])

        last_id = ""
        all_users: List[str] = []

        while True:
            response = post_api_request(
                self.graph_url,
                {"query": ACCOUNTS_QUERY, "variables": {"lastId": last_id, "first": self.batch_size}},
            )
            if response is None:
                raise TransientReadFailure("User directory request failed")
            if response.get("errors"):
                raise TransientReadFailure(f"User directory returned errors: {response['errors']}")
            if not response.get("data"):
                raise TransientReadFailure("Unknown user directory error")

            users = [account["id"] for account in response["data"]["accounts"]]
            all_users.extend(users)

            if not users:
                break
            last_id = users[-1]

        logger.info("UserDirectory: fetched %s users", len(all_users))
        return all_users
