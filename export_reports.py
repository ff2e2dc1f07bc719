# export_reports.py
# 命令列匯出 401 電子申報檔（TXT / TET_U）

import json
import os
import sys
from pathlib import Path

from dotenv import load_dotenv


def write_report(path: Path, content: str, encoding: str):
    with open(path, 'w', encoding=encoding, errors='replace', newline='') as f:
        f.write(content)
    print(f"已輸出: {path}")


def export_reports(app, client_id: int, yyymm: str, tet_u_config_path=None, output_dir=None):
    """
    匯出單一客戶、單一期別的申報檔

    未提供 TET_U 設定檔時只輸出 TXT

    Returns:
        輸出的檔案路徑列表
    """
    from app.services.mapping_service import map_tet_u_config
    from app.services.period_service import get_client
    from app.services.report_service import generate_txt_report, generate_tet_u_report

    output_dir = Path(output_dir or app.config['REPORT_OUTPUT_FOLDER'])
    output_dir.mkdir(parents=True, exist_ok=True)
    encoding = app.config['REPORT_FILE_ENCODING']
    written = []

    with app.app_context():
        client = get_client(client_id)

        txt_path = output_dir / f"{client.tax_id}.TXT"
        write_report(txt_path, generate_txt_report(client_id, yyymm), encoding)
        written.append(txt_path)

        if tet_u_config_path:
            with open(tet_u_config_path, 'r', encoding='utf-8') as f:
                config = map_tet_u_config(json.load(f))
            tet_u_path = output_dir / f"{client.tax_id}.TET_U"
            content = generate_tet_u_report(client_id, yyymm, config,
                                            legacy_encoding=app.config['REPORT_LEGACY_ENCODING'])
            write_report(tet_u_path, content, encoding)
            written.append(tet_u_path)

    return written


def main():
    """主函數"""
    if len(sys.argv) < 3:
        print("用法: python export_reports.py <客戶ID> <期別YYYMM> [TET_U設定JSON] [輸出目錄]")
        print("示例: python export_reports.py 1 11409 tet_u.json ./reports")
        sys.exit(1)

    load_dotenv()
    from app import create_app
    from app.errors import ReportError

    try:
        client_id = int(sys.argv[1])
    except ValueError:
        print(f"錯誤: 客戶ID必須為數字 - {sys.argv[1]}")
        sys.exit(1)

    yyymm = sys.argv[2]
    tet_u_config_path = sys.argv[3] if len(sys.argv) > 3 else None
    output_dir = sys.argv[4] if len(sys.argv) > 4 else None

    if tet_u_config_path and not Path(tet_u_config_path).exists():
        print(f"錯誤: 檔案不存在 - {tet_u_config_path}")
        sys.exit(1)

    app = create_app(os.environ.get('FLASK_ENV', 'production'))

    print(f"正在產生申報檔: 客戶 {client_id} 期別 {yyymm}")
    try:
        written = export_reports(app, client_id, yyymm, tet_u_config_path, output_dir)
    except (ReportError, ValueError) as e:
        print(f"錯誤: {e}")
        sys.exit(1)

    print(f"\n✓ 完成! 共 {len(written)} 個檔案")


if __name__ == "__main__":
    main()
