# run.py (versão para servidor)
import os
import logging
from waitress import serve
from producao_app import create_app

logger = logging.getLogger('producao_app.run')

if __name__ == '__main__':
    # Define a porta em que a aplicação vai rodar.
    PORT = int(os.environ.get('PORT', 52080))

    # O Socket.IO roda em modo 'threading' dentro do próprio app (transporte long-polling)
    app, _ = create_app()

    logger.info("--- Servidor do Quadro de Produção ---")
    logger.info(f"Iniciando na porta: {PORT}")
    logger.info(f"Para acessar, use http://<IP_DO_SERVIDOR>:{PORT} em um navegador.")
    logger.info("Pressione Ctrl+C para parar o servidor.")

    # host='0.0.0.0' aceita conexões de qualquer IP na rede
    serve(app, host='0.0.0.0', port=PORT, threads=int(os.environ.get('WAITRESS_THREADS', 8)))
