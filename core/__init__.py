"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：集中管理所有生命週期狀態轉換
- RoundLifecycle：管理回合的建立、下注、結算、冷卻
- PlayerRegistry：目前在線的玩家
- Locks：並發控制工具（回合建立的互斥旗標）
- Broadcast：WebSocket 事件廣播
"""
