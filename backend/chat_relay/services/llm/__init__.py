from chat_relay.services.llm.ai_reply import AIReplyGenerator, mock_reply

__all__ = ["AIReplyGenerator", "mock_reply"]
