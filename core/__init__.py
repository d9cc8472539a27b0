"""
核心業務邏輯

這個 package 包含期數生命週期，包括：
- State Machine：所有階段轉換都經過它
- Coordinator：由計時器驅動的期數轉換與推播
- Managers：期數與錢包的 transaction 單元
- Round Store：managers 使用的資料存取
- Locks：並發控制工具
"""
