from .catalog import BANK_CATALOG, BankCatalog, BankCatalogEntry

__all__ = ["BANK_CATALOG", "BankCatalog", "BankCatalogEntry"]
