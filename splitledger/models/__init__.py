from splitledger.models.expense import Expense
from splitledger.models.expense_split import ExpenseSplit
from splitledger.models.balance import Balance, BalanceContribution, BalanceStatus
from splitledger.models.payment import Payment, PaymentMethod
