# Overview: Pytest coverage for the Flask CLI bootstrap and crop tier commands.

from app.models import Crop, CropRateTier, Warehouse


class TestSystemCommands:

    def test_init_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["system", "init", "--name", "Main Godown", "--code", "main"])
        second = runner.invoke(args=["system", "init", "--name", "Main Godown"])

        assert first.exit_code == 0
        assert "PASS" in first.output
        assert "SKIP" in second.output
        db_session.expire_all()
        warehouses = db_session.query(Warehouse).all()
        assert [(w.name, w.code) for w in warehouses] == [("Main Godown", "MAIN")]


class TestCropCommands:

    def test_seed_default_tiers_once(self, app, db_session, warehouse):
        crop = Crop(warehouse_id=warehouse.id, name="Paddy")
        db_session.add(crop)
        db_session.commit()
        runner = app.test_cli_runner()

        first = runner.invoke(args=["crops", "seed-default-tiers", "--crop-id", str(crop.id)])
        second = runner.invoke(args=["crops", "seed-default-tiers", "--crop-id", str(crop.id)])

        assert "Added 2 tier(s)" in first.output
        assert "Added 0 tier(s)" in second.output
        tiers = db_session.query(CropRateTier).filter_by(crop_id=crop.id).order_by(CropRateTier.max_days).all()
        assert [(t.max_days, t.rate_paise) for t in tiers] == [(182, 3600), (365, 5500)]

    def test_create_crop_unknown_warehouse(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["crops", "create", "--warehouse-id", "9999", "--name", "Maize"])
        assert result.exit_code != 0
        assert "Warehouse 9999 not found" in result.output

    def test_list_tiers(self, app, db_session, crop):
        result = app.test_cli_runner().invoke(args=["crops", "tiers", "--crop-id", str(crop.id)])
        assert "6-Month Initial" in result.output
        assert "36.00 per bag" in result.output
