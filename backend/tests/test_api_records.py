"""
API tests for the company's records: clients, contracts, notifications,
dashboard and reports.
"""
from datetime import date, timedelta

import pytest


@pytest.fixture
def api(client, auth_headers):
    """Authenticated caller; the first request provisions the company row."""

    class _Api:
        def get(self, path, **kw):
            return client.get(f"/api{path}", headers=auth_headers, **kw)

        def post(self, path, **kw):
            return client.post(f"/api{path}", headers=auth_headers, **kw)

        def put(self, path, **kw):
            return client.put(f"/api{path}", headers=auth_headers, **kw)

        def delete(self, path, **kw):
            return client.delete(f"/api{path}", headers=auth_headers, **kw)

    return _Api()


def _new_client(api, telephone="0700000001", plaque="AB-123-CD", numero="POL-API-1", ends_in=5):
    today = date.today()
    response = api.post(
        "/clients",
        json={
            "nom": "Awa Diallo",
            "telephone": telephone,
            "vehicule": {"immatriculation": plaque, "marque": "Toyota"},
            "contrat": {
                "numero_police": numero,
                "date_debut": (today - timedelta(days=360)).isoformat(),
                "date_fin": (today + timedelta(days=ends_in)).isoformat(),
                "montant": 100000,
            },
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestClientsApi:
    def test_create_list_get_delete(self, api):
        created = _new_client(api)
        client_id = created["client"]["id"]

        listing = api.get("/clients", params={"search": "diallo"}).json()["clients"]
        assert [c["id"] for c in listing] == [client_id]
        assert listing[0]["nombre_contrats"] == 1

        detail = api.get(f"/clients/{client_id}").json()["client"]
        assert detail["vehicules"][0]["immatriculation"] == "AB-123-CD"

        assert api.delete(f"/clients/{client_id}").status_code == 200
        assert api.get(f"/clients/{client_id}").status_code == 404

    def test_duplicate_phone(self, api):
        _new_client(api)
        response = api.post(
            "/clients",
            json={
                "nom": "Autre",
                "telephone": "0700000001",
                "vehicule": {"immatriculation": "ZZ-000-ZZ"},
                "contrat": {
                    "numero_police": "POL-API-2",
                    "date_debut": "2026-01-01",
                    "date_fin": "2026-12-31",
                    "montant": 5000,
                },
            },
        )
        assert response.status_code == 400

    def test_missing_contract_is_rejected(self, api):
        response = api.post(
            "/clients",
            json={"nom": "Sans contrat", "telephone": "0100", "vehicule": {"immatriculation": "X"}},
        )
        assert response.status_code == 422

    def test_bad_status_filter(self, api):
        assert api.get("/clients", params={"statut": "parti"}).status_code == 422


class TestContractsApi:
    def test_listing_carries_alert_and_breakdown(self, api):
        _new_client(api, ends_in=5)

        contrats = api.get("/contracts").json()["contrats"]

        assert len(contrats) == 1
        assert contrats[0]["jours_restants"] == 5
        assert contrats[0]["alerte_renouvellement"] is True
        assert contrats[0]["breakdown"]["gross_premium"] == 119920.0

    def test_create_renew_and_payment(self, api):
        created = _new_client(api)
        client_id = created["client"]["id"]

        response = api.post(
            "/contracts",
            json={
                "client_id": client_id,
                "vehicule_id": created["vehicule_id"],
                "type_contrat": "Tiers",
                "duree_mois": 12,
                "date_debut": "2026-01-31",
                "montant": 50000,
            },
        )
        assert response.status_code == 201
        contrat = response.json()["contrat"]
        assert contrat["date_fin"] == "2027-01-31"

        renewed = api.post(f"/contracts/{contrat['id']}/renew").json()["contrat"]
        assert renewed["date_debut"] == "2027-02-01"
        assert api.get(f"/contracts/{contrat['id']}").json()["contrat"]["statut"] == "renouvele"

        paid = api.put(
            f"/contracts/{renewed['id']}/payment",
            json={"montant_paye": 20000, "montant_restant": 30000},
        )
        assert paid.status_code == 200
        assert paid.json()["contrat"]["montant_restant"] == 30000.0

        negative = api.put(f"/contracts/{renewed['id']}/payment", json={"montant_paye": -5})
        assert negative.status_code == 400

    def test_quote(self, api):
        response = api.post("/contracts/quote", json={"net_premium": 100000})
        assert response.status_code == 200
        assert response.json()["net_payable"] == 69540.0

    def test_unknown_contract(self, api):
        assert api.get("/contracts/9999").status_code == 404
        assert api.delete("/contracts/9999").status_code == 404


class TestNotificationsApi:
    def test_create_and_mark_read(self, api):
        created = api.post(
            "/notifications",
            json={"type": "info", "titre": "Bienvenue", "message": "Compte prêt"},
        )
        assert created.status_code == 201
        notification_id = created.json()["notification"]["id"]

        assert len(api.get("/notifications", params={"lu": "false"}).json()["notifications"]) == 1
        assert api.put(f"/notifications/{notification_id}/read").status_code == 200
        assert api.get("/notifications", params={"lu": "false"}).json()["notifications"] == []

    def test_unknown_type(self, api):
        response = api.post("/notifications", json={"type": "spam", "titre": "x", "message": "y"})
        assert response.status_code == 422


class TestDashboardAndReports:
    def test_dashboard(self, api):
        _new_client(api, ends_in=5)

        stats = api.get("/stats/dashboard").json()

        assert stats["clients_actifs"] == 1
        assert stats["contrats_actifs"] == 1
        assert stats["renouvellements_a_venir"] == 1

    def test_summary_and_bordereau(self, api):
        _new_client(api)

        summary = api.get("/reports/summary", params={"filter": "all"}).json()
        assert summary["total_contracts"] == 1
        assert summary["total_revenue"] == 100000.0
        assert len(summary["contracts_evolution"]) == 6

        bordereau = api.get("/reports/bordereau").json()
        assert len(bordereau["lines"]) == 1
        assert bordereau["code"] == "POL-AP"

    def test_unknown_period(self, api):
        assert api.get("/reports/summary", params={"filter": "decade"}).status_code == 422
