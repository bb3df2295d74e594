from docflow.gateway.reconciler import ResultReconciler

__all__ = ["ResultReconciler"]
