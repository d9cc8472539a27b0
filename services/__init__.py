"""
服務層

這個 package 包含純計算邏輯，不負責生命週期轉換：
- outcome_service：開獎號碼、顏色與價格
- settlement_service：判定並結算下注
- amount_service：金額格式檢查（精確到分）
- naming_service：期號產生
- history_service：分頁歷史查詢
"""
