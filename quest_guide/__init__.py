"""Conversation-driven request-directive engine for API-integration quests."""
