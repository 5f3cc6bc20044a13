from src.entities.company import Company
from src.entities.contract import Contract, ContractStatus, ContractType

__all__ = ["Company", "Contract", "ContractStatus", "ContractType"]
