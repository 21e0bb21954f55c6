from ladderbot.state.bot_state import BotState

__all__ = ["BotState"]
