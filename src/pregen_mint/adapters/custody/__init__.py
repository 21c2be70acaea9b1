from .local import LocalCustodialService, LocalCustodialSession
