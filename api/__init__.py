"""
API 層

FastAPI routers；每個 endpoint 自行把業務異常轉成 HTTP 錯誤：
- periods：目前期數、歷史紀錄、遊戲狀態
- bets：下注、下注紀錄
- players：註冊、錢包、帳本紀錄
- websocket：即時期數推播
"""
