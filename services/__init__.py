"""
服務層

這個 package 包含純計算邏輯與外部服務 client，不負責狀態轉換：
- PotResolver：勝出彩池判定
- SettlementClient：外部結算服務
- PayoffService：彩池統計與結算回報格式
- HandService：裝飾用牌型
- NamingService：訪客名稱
- HistoryService：回合封存
"""
