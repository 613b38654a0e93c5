# set_admin_password.py
import os
import logging
from producao_app import create_app
from producao_app.armazenamento import transacao, get_usuario_por_username, criar_usuario
from producao_app.departamentos import PAPEL_ADMIN
from producao_app.erros import ErroProducao

logger = logging.getLogger('producao_app.setup')


def setup_initial_admin():
    app, _ = create_app()

    with app.app_context():
        admin_username = os.environ.get('ADMIN_USERNAME', 'admin')
        admin_nome = "Administrador Sistema"
        admin_senha = os.environ.get('ADMIN_PASSWORD', 'admin123')  # <--- ALTERE ESTA SENHA APÓS O PRIMEIRO LOGIN

        try:
            with transacao():
                user = get_usuario_por_username(admin_username)
                if user:
                    logger.info(f"O usuário {admin_username} já existe. Atualizando senha e papel...")
                    user.set_password(admin_senha)
                    user.role = PAPEL_ADMIN
                else:
                    logger.info(f"Criando novo usuário administrador: {admin_username}...")
                    criar_usuario(admin_username, admin_senha, admin_nome, PAPEL_ADMIN)
        except ErroProducao as e:
            logger.error(f"Erro ao salvar: {e.mensagem}")
            raise SystemExit(1)

        print("\n" + "=" * 40)
        print(" ADMIN CONFIGURADO COM SUCESSO!")
        print(f" Usuário: {admin_username}")
        print(f" Senha: {admin_senha}")
        print("=" * 40)
        print("Lembre-se de alterar a senha no primeiro acesso.")


if __name__ == "__main__":
    setup_initial_admin()
