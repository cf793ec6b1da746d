# Every mapped class is imported here so string-based relationships resolve
# no matter which model module is imported first.
from .entreprise import Entreprise
from .client import Client
from .vehicule import Vehicule
from .contrat import Contrat, ContractStatus
from .notification import Notification, NotificationType

__all__ = [
    "Entreprise",
    "Client",
    "Vehicule",
    "Contrat",
    "ContractStatus",
    "Notification",
    "NotificationType",
]
