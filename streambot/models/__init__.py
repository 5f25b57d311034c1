from streambot.models.bot_config import BotConfigRecord
from streambot.models.client import Client
from streambot.models.streaming_account import StreamingAccount
